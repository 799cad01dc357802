from datetime import date

import pytest

from gmao import metrics


def test_division_par_zero_renvoie_zero():
    assert metrics.safe_div(10, 0) == 0.0
    assert metrics.calc_mtbf(100, 0) == 0.0
    assert metrics.calc_mttr(5, 0) == 0.0
    assert metrics.calc_disp(5, 0) == 0.0


def test_disponibilite_et_taux_de_marche():
    assert metrics.calc_disp(24, 240) == pytest.approx(90.0)
    assert metrics.calc_tdm(12, 24) == pytest.approx(50.0)
    assert metrics.calc_mtbf(100, 4) == pytest.approx(25.0)


def test_calculate_formulas():
    f = metrics.calculate_formulas(him=4, hrm=10, ni=2, nho=24)
    assert f["hrd"] == 10
    assert f["mttr"] == pytest.approx(2.0)
    assert f["sw"] == 0
    assert f["disp"] == pytest.approx(83.333, rel=1e-3)
    assert f["tdm"] == pytest.approx(41.667, rel=1e-3)
    assert f["mtbf"] == pytest.approx(5.0)
    assert f["util"] == pytest.approx(50.0)


def test_periodes():
    assert metrics.month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert metrics.days_in_month(2025, 2) == 28
    assert metrics.days_elapsed_in_year(date(2024, 3, 1)) == 61
    assert metrics.nho(30, 3) == 2160
