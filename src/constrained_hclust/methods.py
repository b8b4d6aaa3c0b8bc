#!/usr/bin/env python3
# methods.py
"""
Lance-Williams fusion criteria.

Every supported method is a row of coefficients (alpha_a, alpha_b, beta, gamma) used in

    d(AB, K) = alpha_a * d(A, K) + alpha_b * d(B, K) + beta * d(A, B) + gamma * |d(A, K) - d(B, K)|

where A and B are the merging clusters and K is any other live cluster. Coefficients may
depend on the cluster sizes n_a, n_b and n_k. The functions below accept NumPy arrays for
the K-dependent arguments so a whole row of the dissimilarity matrix is updated at once.

Doxygen-style docstrings are used (with @param / @return tags).
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple, Union
import numpy as np

from constrained_hclust.errors import InvalidInput

__all__ = [
    "Method",
    "LinkageMethod",
    "DEFAULT_FLEXIBLE_BETA",
    "parse_method",
    "lance_williams_coefficients",
    "lance_williams_update",
]

ArrayLike = Union[float, np.ndarray]

DEFAULT_FLEXIBLE_BETA = -0.25


class Method(Enum):
    SINGLE = "single"
    COMPLETE = "complete"
    AVERAGE = "average"
    WEIGHTED = "weighted"
    CENTROID = "centroid"
    MEDIAN = "median"
    WARD = "ward"
    WARD_D2 = "ward_d2"
    FLEXIBLE = "flexible"


_aliases = {
    "upgma": Method.AVERAGE,
    "wpgma": Method.WEIGHTED,
    "mcquitty": Method.WEIGHTED,
    "upgmc": Method.CENTROID,
    "wpgmc": Method.MEDIAN,
    "ward.d": Method.WARD,
    "ward_d": Method.WARD,
    "ward.d2": Method.WARD_D2,
    "beta-flexible": Method.FLEXIBLE,
}

_monotonic = {
    Method.SINGLE,
    Method.COMPLETE,
    Method.AVERAGE,
    Method.WEIGHTED,
    Method.WARD,
    Method.WARD_D2,
}


class LinkageMethod(NamedTuple):
    """A method kind plus its numeric parameter (only flexible uses beta)."""

    kind: Method
    beta: Optional[float] = None

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def is_monotonic(self) -> bool:
        """True when unconstrained merge heights can never decrease."""
        return self.kind in _monotonic

    @property
    def squared_input(self) -> bool:
        """True when the update runs on squared dissimilarities (heights reported as roots)."""
        return self.kind is Method.WARD_D2


def parse_method(method: Union[str, Method, LinkageMethod],
                 beta: Optional[float] = None) -> LinkageMethod:
    """
    Resolve a user-facing method selector into a LinkageMethod.

    @param method: method name (case-insensitive, aliases such as 'upgma' or 'ward.D2'
                   accepted), a Method member, or an already built LinkageMethod
    @param beta: parameter of the flexible method, -1 <= beta < 1. Defaults to -0.25.
                 Passing it with any other method is an error.
    @return: LinkageMethod
    @raises InvalidInput: unknown method, or misplaced / out-of-range beta
    """
    if isinstance(method, LinkageMethod):
        if beta is not None and beta != method.beta:
            raise InvalidInput("beta given twice with conflicting values")
        beta = method.beta
        kind = method.kind
    elif isinstance(method, Method):
        kind = method
    elif isinstance(method, str):
        key = method.strip().lower()
        try:
            kind = Method(key)
        except ValueError:
            if key not in _aliases:
                raise InvalidInput(f"Unsupported method: {method!r}") from None
            kind = _aliases[key]
    else:
        raise InvalidInput(f"Unsupported method: {method!r}")

    if kind is Method.FLEXIBLE:
        if beta is None:
            beta = DEFAULT_FLEXIBLE_BETA
        beta = float(beta)
        if not (-1.0 <= beta < 1.0):
            raise InvalidInput(f"flexible beta must satisfy -1 <= beta < 1, got {beta}")
        return LinkageMethod(kind, beta)

    if beta is not None:
        raise InvalidInput(f"beta is only meaningful for the flexible method, not {kind.value!r}")
    return LinkageMethod(kind)


def lance_williams_coefficients(method: LinkageMethod,
                                n_a: int, n_b: int,
                                n_k: ArrayLike) -> Tuple[ArrayLike, ArrayLike, ArrayLike, ArrayLike]:
    """
    Coefficients (alpha_a, alpha_b, beta, gamma) of the chosen method.

    @param method: LinkageMethod from parse_method
    @param n_a: size of merging cluster A
    @param n_b: size of merging cluster B
    @param n_k: size(s) of the third cluster(s); scalar or array
    @return: tuple (alpha_a, alpha_b, beta, gamma); entries broadcast against n_k
    """
    kind = method.kind
    n_ab = float(n_a + n_b)
    if kind is Method.SINGLE:
        return 0.5, 0.5, 0.0, -0.5
    if kind is Method.COMPLETE:
        return 0.5, 0.5, 0.0, 0.5
    if kind is Method.AVERAGE:
        return n_a / n_ab, n_b / n_ab, 0.0, 0.0
    if kind is Method.WEIGHTED:
        return 0.5, 0.5, 0.0, 0.0
    if kind is Method.CENTROID:
        return n_a / n_ab, n_b / n_ab, -(n_a * n_b) / (n_ab * n_ab), 0.0
    if kind is Method.MEDIAN:
        return 0.5, 0.5, -0.25, 0.0
    if kind is Method.WARD or kind is Method.WARD_D2:
        n_k = np.asarray(n_k, dtype=float)
        total = n_ab + n_k
        return (n_a + n_k) / total, (n_b + n_k) / total, -n_k / total, 0.0
    if kind is Method.FLEXIBLE:
        half = (1.0 - method.beta) / 2.0
        return half, half, method.beta, 0.0
    raise InvalidInput("Unsupported method for lance_williams_coefficients: " + str(kind))


def lance_williams_update(method: LinkageMethod,
                          d_ak: ArrayLike, d_bk: ArrayLike, d_ab: float,
                          n_a: int, n_b: int, n_k: ArrayLike) -> ArrayLike:
    """
    Dissimilarity between the merged cluster AB and cluster(s) K.

    @param method: LinkageMethod from parse_method
    @param d_ak: d(A, K), scalar or array over K
    @param d_bk: d(B, K), same shape as d_ak
    @param d_ab: d(A, B)
    @param n_a: size of A
    @param n_b: size of B
    @param n_k: size(s) of K, broadcastable to d_ak
    @return: d(AB, K) with the shape of d_ak. May be negative for centroid, median
             and some flexible betas; callers decide what to do with that.
    """
    d_ak = np.asarray(d_ak, dtype=float)
    d_bk = np.asarray(d_bk, dtype=float)
    alpha_a, alpha_b, beta, gamma = lance_williams_coefficients(method, n_a, n_b, n_k)
    out = alpha_a * d_ak + alpha_b * d_bk + beta * d_ab
    if gamma:
        out = out + gamma * np.abs(d_ak - d_bk)
    if out.ndim == 0:
        return float(out)
    return out
