"""
Template for creating a new data preprocessor class in alexinflow.

Overview:
We use an abstract base class (ABC) to define the structure for data preprocessors.
This class should be inherited by all data preprocessor classes in the alexinflow package,
which will force the customized data preprocessor to have the `load`, `process`, and
`save` methods.

Change Log:
2025-05-07, Preprocessor base class without path management.
"""

from abc import ABC, abstractmethod


class DataPreprocessor(ABC):
    def __init__(self):
        """
        Abstract class for data preprocessor.

        Attributes
        ----------
        input_dirs : dict
            Dictionary with filenames as keys and input paths as values.
        output_dirs : dict
            Dictionary with filenames as keys and output paths as values.
        raw_data : dict
            Dictionary to store raw data loaded from input paths.
        processed_data : dict
            Dictionary to store processed data.

        Methods
        -------
        load(**kwargs)
            Load raw data from files or retrieve from an API.
        process(**kwargs)
            Process the loaded raw data.
        save(**kwargs)
            Save the processed data to output paths.
        """
        # The following attributes should be predefined in each of the preprocessor
        # classes, allowing users to overwrite them as needed.

        # The input files for the raw data. Filename as key and path as value.
        self.input_dirs = {}
        # The output files for the processed data. Filename as key and path as value.
        self.output_dirs = {}
        # The raw data loaded from the input files.
        self.raw_data = {}
        # The processed data.
        self.processed_data = {}

    @abstractmethod
    def load(self, **kwargs):
        """
        Load the raw data from the files defined in `self.input_dirs`.
        For data retrieval from API, please allow keyword arguments to be passed to
        the function for flexibility. E.g., the date range to retrieve.
        """
        pass

    @abstractmethod
    def process(self, **kwargs):
        """
        Do the data processing. This method should be implemented to process the
        raw data loaded from the `load` method. The processed data should be stored in
        `self.processed_data`.
        """
        pass

    @abstractmethod
    def save(self, **kwargs):
        """
        This method should save the processed data to the output files defined in
        `self.output_dirs`.
        """
        pass
