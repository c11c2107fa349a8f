from alexinflow.pre.regression import *
from alexinflow.pre.loss_model import *
from alexinflow.pre.travel_time_model import *
from alexinflow.pre.upstream_flow import *
from alexinflow.pre.flow_bounds import *
from alexinflow.pre.met_drivers import *
from alexinflow.pre.inflow_targets import *

from alexinflow.pre.loss_model import LossModelFitter
from alexinflow.pre.travel_time_model import TravelTimeModelFitter
from alexinflow.pre.upstream_flow import UpstreamFlowRetriever
from alexinflow.pre.met_drivers import MetDriverLoader
