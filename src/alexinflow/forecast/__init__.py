from alexinflow.forecast.random_walk import *
from alexinflow.forecast.downstream import *
from alexinflow.forecast.flow_inflow import *
from alexinflow.forecast.temperature_inflow import *
from alexinflow.forecast.records import *
