import numpy as np

from data_structures import Claset
from dsv import DsvWriter
from smote import SmoteEngine, SmoteParams


def _minority(rng, n=12):
    x = rng.normal(loc=2.0, size=(n, 3))
    return [list(map(float, r)) + ["min"] for r in x]


def _between(value, a, b):
    lo, hi = min(a, b), max(a, b)
    return lo - 1e-12 <= value <= hi + 1e-12


def test_smote_output_shape_and_class_origin():
    rng = np.random.default_rng(4)
    rows = _minority(rng)
    engine = SmoteEngine(SmoteParams(percent_over=200, k=3, class_index=3, random_state=4))
    synthetics = engine.resampling(rows)

    assert len(synthetics) == 2 * len(rows)
    for syn in synthetics:
        assert len(syn) == 4
        assert syn[3] == "min"


def test_synthetics_lie_inside_the_bounding_box_of_the_minority():
    rng = np.random.default_rng(8)
    rows = _minority(rng)
    engine = SmoteEngine(SmoteParams(percent_over=300, k=5, class_index=-1, random_state=1))
    synthetics = engine.resampling(Claset(rows))

    data = np.asarray([r[:3] for r in rows])
    for syn in synthetics:
        for attr in range(3):
            assert _between(syn[attr], data[:, attr].min(), data[:, attr].max())


def test_percent_below_hundred_samples_a_subset_once_each():
    rng = np.random.default_rng(6)
    rows = _minority(rng, n=10)
    engine = SmoteEngine(SmoteParams(percent_over=50, k=3, class_index=3, random_state=6))
    synthetics = engine.resampling(rows)
    assert len(synthetics) == 5


def test_seeded_runs_are_reproducible():
    rows = _minority(np.random.default_rng(3))
    a = SmoteEngine(SmoteParams(percent_over=100, k=2, class_index=3, random_state=11)).resampling(rows)
    b = SmoteEngine(SmoteParams(percent_over=100, k=2, class_index=3, random_state=11)).resampling(rows)
    assert a == b


def test_invalid_parameters_fall_back_to_defaults():
    params = SmoteParams(percent_over=0, k=-2)
    assert params.percent_over == 100
    assert params.k == 5


def test_write_synthetic_rows(tmp_path):
    rows = _minority(np.random.default_rng(0), n=4)
    path = tmp_path / "syn.csv"
    engine = SmoteEngine(SmoteParams(k=2, class_index=3, random_state=0, synthetic_file=str(path)))
    synthetics = engine.resampling(rows)

    lines = path.read_text().strip().splitlines()
    assert len(lines) == len(synthetics) == 4
    assert all(line.endswith(",min") for line in lines)

    with DsvWriter("") as writer:
        writer.write_rows(synthetics)
        assert writer.n_rows == 0
