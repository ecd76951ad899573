import pytest

from lcpeaks import simulation
from lcpeaks.core.models import Compound


@pytest.fixture(scope="session")
def compounds() -> list[Compound]:
    return [
        Compound(id="c1", name="compound-1", mass=299.0, charge=1, expected_rt=10.0),
        Compound(id="c2", name="compound-2", mass=399.0, charge=1, expected_rt=20.0),
        Compound(id="c3", name="compound-3", mass=499.0, charge=1, expected_rt=30.0),
    ]


@pytest.fixture(scope="session")
def simulation_config() -> simulation.SimulatedSampleConfiguration:
    return simulation.SimulatedSampleConfiguration(n_scans=400, time_resolution=0.1)


@pytest.fixture(scope="session")
def compound_sample_factory(compounds, simulation_config):
    def factory(id: str, rt_shift: float = 0.0, **kwargs):
        specs = list()
        for compound in compounds:
            assert compound.expected_rt is not None
            spec = simulation.SimulatedCompoundSpec(
                compound=compound,
                rt=compound.expected_rt + rt_shift,
                int=1000.0,
                width=0.5,
                abundances=[0.3],
            )
            specs.append(spec)
        sample_factory = simulation.SimulatedSampleFactory(config=simulation_config, compounds=specs)
        return sample_factory(id, **kwargs)

    return factory
