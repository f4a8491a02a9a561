# SPDX-License-Identifier: Apache-2.0
"""
Single-variant association tests run on decrypted genotype/phenotype vectors.

Genotypes are per-sample alternate-allele dosages (0, 1, 2); phenotypes are
case/control flags (1 = case, 0 = control). Every test returns the chi-square
statistic (1 df), its p-value and the allelic odds ratio.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from gwasledger.core.exceptions import CleartextFormatError


@dataclass(frozen=True)
class AssociationResult:
    statistic: float
    p_value: float
    odds_ratio: float


def chi2_sf_1df(statistic: float) -> float:
    """Upper tail of the chi-square distribution with one degree of freedom."""
    if statistic <= 0:
        return 1.0
    return math.erfc(math.sqrt(statistic / 2.0))


def _as_arrays(genotypes: list[int], phenotypes: list[int]) -> tuple[np.ndarray, np.ndarray]:
    g = np.asarray(genotypes, dtype=np.int64)
    p = np.asarray(phenotypes, dtype=np.int64)
    if g.shape != p.shape:
        raise CleartextFormatError(f"Genotype/phenotype length mismatch: {g.size} vs {p.size}")
    if g.size == 0:
        raise CleartextFormatError("Dataset contains no samples")
    if g.min() < 0 or g.max() > 2:
        raise CleartextFormatError("Genotype dosages must be 0, 1 or 2")
    if p.min() < 0 or p.max() > 1:
        raise CleartextFormatError("Phenotype flags must be 0 or 1")
    return g, p


def allele_table(genotypes: list[int], phenotypes: list[int]) -> np.ndarray:
    """2x2 table: rows (case, control), columns (alt allele, ref allele)."""
    g, p = _as_arrays(genotypes, phenotypes)
    table = np.zeros((2, 2), dtype=np.int64)
    for row, flag in enumerate((1, 0)):
        dosages = g[p == flag]
        alt = int(dosages.sum())
        table[row] = (alt, 2 * dosages.size - alt)
    return table


def genotype_table(genotypes: list[int], phenotypes: list[int]) -> np.ndarray:
    """2x3 table: rows (case, control), columns (dosage 0, 1, 2)."""
    g, p = _as_arrays(genotypes, phenotypes)
    table = np.zeros((2, 3), dtype=np.int64)
    for row, flag in enumerate((1, 0)):
        table[row] = np.bincount(g[p == flag], minlength=3)[:3]
    return table


def allelic_odds_ratio(table: np.ndarray) -> float:
    """Odds ratio of the alternate allele in cases; Haldane-Anscombe correction on zero cells."""
    a, b = (float(x) for x in table[0])
    c, d = (float(x) for x in table[1])
    if 0 in (a, b, c, d):
        a, b, c, d = a + 0.5, b + 0.5, c + 0.5, d + 0.5
    return (a * d) / (b * c)


def allelic_chi_square(genotypes: list[int], phenotypes: list[int]) -> AssociationResult:
    """Pearson chi-square on the allele-by-trait table, no continuity correction."""
    table = allele_table(genotypes, phenotypes)
    a, b = (int(x) for x in table[0])
    c, d = (int(x) for x in table[1])
    n = a + b + c + d
    denominator = (a + b) * (c + d) * (a + c) * (b + d)
    statistic = n * (a * d - b * c) ** 2 / denominator if denominator else 0.0
    return AssociationResult(float(statistic), chi2_sf_1df(statistic), allelic_odds_ratio(table))


def cochran_armitage_trend(genotypes: list[int], phenotypes: list[int]) -> AssociationResult:
    """Cochran-Armitage trend test with additive weights (0, 1, 2)."""
    table = genotype_table(genotypes, phenotypes)
    weights = np.array([0, 1, 2], dtype=np.float64)
    cases = table[0].astype(np.float64)
    controls = table[1].astype(np.float64)
    totals = cases + controls
    r, s = cases.sum(), controls.sum()
    n = r + s
    trend = float(np.sum(weights * (cases * s - controls * r)))
    cross = 0.0
    for i in range(3):
        for j in range(i + 1, 3):
            cross += weights[i] * weights[j] * totals[i] * totals[j]
    variance = (r * s / n) * (float(np.sum(weights**2 * totals * (n - totals))) - 2 * cross)
    statistic = trend**2 / variance if variance > 0 else 0.0
    odds_ratio = allelic_odds_ratio(allele_table(genotypes, phenotypes))
    return AssociationResult(float(statistic), chi2_sf_1df(statistic), odds_ratio)


ASSOCIATION_TESTS = {
    "allelic_chi_square": allelic_chi_square,
    "cochran_armitage_trend": cochran_armitage_trend,
}

ASSOCIATION_TEST_REGISTRY = {
    "allelic_chi_square": {
        "name": "Allelic chi-square",
        "description": "Pearson chi-square over the 2x2 allele-by-trait table (1 df).",
        "outputs": ["statistic", "p_value", "odds_ratio"],
    },
    "cochran_armitage_trend": {
        "name": "Cochran-Armitage trend",
        "description": "Additive trend test over the 2x3 genotype-by-trait table (1 df).",
        "outputs": ["statistic", "p_value", "odds_ratio"],
    },
}


def run_association_test(name: str, genotypes: list[int], phenotypes: list[int]) -> AssociationResult:
    if name not in ASSOCIATION_TESTS:
        raise ValueError(f"Unknown association test: {name}. Allowed: {list(ASSOCIATION_TESTS.keys())}")
    return ASSOCIATION_TESTS[name](genotypes, phenotypes)
