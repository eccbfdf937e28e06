import pytest

from amaranth.sim import Simulator


def pytest_addoption(parser):
    parser.addoption(
        "--vcds",
        action="store_true",
        help="generate Value Change Dump (vcds) from simulations",
    )
    parser.addini(
        "long_vcd_filenames",
        type="bool",
        default=False,
        help="if set, vcd files get longer, but less ambiguous, filenames"
    )


class SimulatorFixture:
    def __init__(self, req, mod, clks, cfg):
        self.mod = mod

        if cfg.getini("long_vcd_filenames"):
            self.name = req.node.name + "-" + req.module.__name__
        else:
            self.name = req.node.name
        # Parametrized ids may contain characters that don't belong in
        # filenames.
        self.name = self.name.replace("/", "_").replace(" ", "_")

        self.sim = Simulator(self.mod)
        self.vcds = cfg.getoption("vcds")

        # Purely combinational modules have no clock domain to drive.
        if clks is None:
            clks = ()
        elif isinstance(clks, (int, float)):
            clks = (clks,)

        for clk in clks:
            self.sim.add_clock(clk)

    def run(self, testbenches=[], processes=[]):
        for t in testbenches:
            self.sim.add_testbench(t)

        for p in processes:
            self.sim.add_process(p)

        if self.vcds:
            with self.sim.write_vcd(self.name + ".vcd", self.name + ".gtkw"):
                self.sim.run()
        else:
            self.sim.run()


@pytest.fixture
def sim(request, mod, clks, pytestconfig):
    return SimulatorFixture(request, mod, clks, pytestconfig)
