# gmao/metrics.py
"""
📐 Formules des indicateurs de maintenance
==========================================

Compteurs bruts :
- NHO : nombre d'heures ouvrables (24 h par jour et par engin)
- HIM : heures d'immobilisation
- HRM : heures réelles de marche
- NI  : nombre d'interventions
- TP / VS : travaux préventifs / visites systématiques

Toutes les divisions sont protégées : dénominateur nul → 0.
"""

import calendar
from datetime import date
from typing import Dict, Tuple

HOURS_PER_DAY = 24


def safe_div(a: float, b: float) -> float:
    if not b:
        return 0.0
    return a / b


def calc_hrd(nho: float, him: float, hrm: float) -> float:
    """Heures de disponibilité non utilisées."""
    return nho - (him + hrm)


def calc_mttr(him: float, ni: float) -> float:
    return safe_div(him, ni)


def calc_sw(tp: float, vs: float, him: float) -> float:
    return safe_div(tp + vs, him) * 100


def calc_disp(him: float, nho: float) -> float:
    if not nho:
        return 0.0
    return (1 - safe_div(him, nho)) * 100


def calc_tdm(hrm: float, nho: float) -> float:
    return safe_div(hrm, nho) * 100


def calc_mtbf(hrm: float, ni: float) -> float:
    return safe_div(hrm, ni)


def calc_util(hrm: float, hrd: float) -> float:
    return safe_div(hrm, hrm + hrd) * 100


def calculate_formulas(
    him: float, hrm: float, ni: float, nho: float, tp: float = 0, vs: float = 0
) -> Dict[str, float]:
    """Toutes les formules d'un coup (HRD, MTTR, SW, DISP, TDM, MTBF, UTIL)."""
    hrd = calc_hrd(nho, him, hrm)
    return {
        "hrd": hrd,
        "mttr": calc_mttr(him, ni),
        "sw": calc_sw(tp, vs, him),
        "disp": calc_disp(him, nho),
        "tdm": calc_tdm(hrm, nho),
        "mtbf": calc_mtbf(hrm, ni),
        "util": calc_util(hrm, hrd),
    }


def round2(value: float) -> float:
    return round(value, 2)


# -------------------------------------------------
# 📅 Périodes
# -------------------------------------------------
def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """(premier jour, dernier jour) du mois."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def nho(days: int, engins: int = 1) -> int:
    return HOURS_PER_DAY * days * engins


def days_elapsed_in_year(day: date) -> int:
    """Nombre de jours du 1er janvier à `day` inclus."""
    return (day - date(day.year, 1, 1)).days + 1
