import pytest

from model.oscillo_model import OscilloModel


@pytest.fixture
def model():
    m = OscilloModel()
    m.channels[1].active = True
    return m


@pytest.fixture
def dual_model(model):
    model.channels[2].active = True
    return model
