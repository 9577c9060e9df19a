import pytest
from hypothesis import settings

from genweights import LhapdfTable, WeightHelper, WeightHelperConfig

# Hypothesis profiles shared by every suite
settings.register_profile("ci", max_examples=50, deadline=None)
settings.register_profile("dev", max_examples=10)
settings.register_profile("debug", max_examples=1)
settings.load_profile("ci")

# (name, first LHA id, number of members)
PDF_SETS = [
    ("CT14nnlo", 13000, 57),
    ("CT14nlo", 13100, 57),
    ("NNPDF30_nlo_as_0118", 260000, 101),
    ("NNPDF31_nnlo_as_0118", 303600, 101),
    ("NNPDF31_nnlo_hessian_pdfas", 306000, 103),
    ("PDF4LHC15_nlo_100_pdfas", 90900, 103),
]

# Standard 9-point muR/muF grid, central first
SCALE_GRID = [
    (1.0, 1.0), (1.0, 2.0), (1.0, 0.5),
    (2.0, 1.0), (2.0, 2.0), (2.0, 0.5),
    (0.5, 1.0), (0.5, 2.0), (0.5, 0.5),
]


@pytest.fixture(scope="session")
def lhapdf_table():
    """PDF set table covering every set used in the test runs."""
    return LhapdfTable.from_sets(PDF_SETS)


@pytest.fixture
def config():
    return WeightHelperConfig()


@pytest.fixture
def helper(lhapdf_table, config):
    return WeightHelper(lhapdf_table, config)


def scale_label(n, mu_r, mu_f, pdf=None):
    """Scale-variation label in the LHE ``<weight>`` attribute style."""
    label = f'scale_variation_{n} muR="{mu_r}" muF="{mu_f}"'
    if pdf is not None:
        label += f' pdf="{pdf}"'
    return label


def pdf_label(n, lhaid=None):
    label = f'PDF_variation_{n}'
    if lhaid is not None:
        label += f' pdf="{lhaid}"'
    return label


@pytest.fixture
def make_scale_labels():
    """Factory: scale labels over the muR/muF grid, optionally without the central point."""
    def _make(pdf=306000, include_central=True, start=1):
        grid = SCALE_GRID if include_central else SCALE_GRID[1:]
        return [scale_label(start + i, mu_r, mu_f, pdf) for i, (mu_r, mu_f) in enumerate(grid)]
    return _make


@pytest.fixture
def make_pdf_labels():
    """Factory: consecutive members of one PDF set."""
    def _make(first_lhaid=306000, n_members=5, start=1):
        return [pdf_label(start + i, first_lhaid + i) for i in range(n_members)]
    return _make


@pytest.fixture
def standard_run_labels(make_scale_labels, make_pdf_labels):
    """9 scale variations, 5 Hessian PDF members and one matrix-element reweight."""
    return (
        make_scale_labels(pdf=306000)
        + make_pdf_labels(306000, 5)
        + ['mg_reweighting_1 param="mt=172.5"']
    )


@pytest.fixture
def orphan_run_labels(make_scale_labels):
    """Nominal weight emitted as a bare PDF member ahead of central-less scale variations."""
    return ['nominal lhapdf="13000"'] + make_scale_labels(pdf=13000, include_central=False)
