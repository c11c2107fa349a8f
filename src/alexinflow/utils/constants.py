"""
Contains constants used throughout the package.

Overview:
Unit conversions between the flow units reported by the SA Water Data portal,
the DEW loss tables and the canonical unit of the package (ML/d).

Technical Notes:
- All flows are handled internally in megalitres per day (ML/d).
- Supported upstream units are listed in `supported_flow_units`.

Links:
- https://water.data.sa.gov.au

Change Log:
2025-05-07, Initial version of the flow unit constants.
"""

# Constants
m3s_to_mld = 86.4  # 1 m3/s = 86,400 m3/d = 86.4 ML/d
gld_to_mld = 1000.0
kelvin_offset = 273.15
epsilon = 1e-5

# Multipliers to ML/d keyed by the unit strings accepted from users
flow_unit_to_mld = {
    "MLd": 1.0,
    "m3s": m3s_to_mld,
    "GLd": gld_to_mld,
}

supported_flow_units = tuple(flow_unit_to_mld.keys())
