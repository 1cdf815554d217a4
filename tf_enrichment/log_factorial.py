"""Log-space combinatorics backing the hypergeometric tail used by the Fisher test."""

import logging
import math
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class LogFactorialCache:
    """
    Growable memo table of ``ln(n!)``.

    Entries are filled incrementally (``ln(n!) = ln((n-1)!) + ln(n)``) and the
    table never shrinks. Growth happens under a lock so one instance can be
    shared between threads; reads of already-filled entries take no lock.
    Pass a fresh instance to :func:`compute_enrichment` to keep a computation
    fully isolated.
    """

    def __init__(self) -> None:
        self._table = [0.0]
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._table)

    def log_factorial(self, n: int) -> float:
        """
        Return ``ln(n!)``.

        Args:
            n: A non-negative integer. Negative values return 0.0.

        Returns:
            The natural logarithm of ``n!``
        """
        if n < 0:
            return 0.0
        table = self._table
        if n >= len(table):
            with self._lock:
                for i in range(len(table), n + 1):
                    table.append(table[i - 1] + math.log(i))
        return table[n]

    def log_choose(self, n: int, k: int) -> float:
        """Return ``ln(C(n, k))``, or ``-inf`` when ``k`` is outside ``[0, n]``."""
        if k < 0 or k > n:
            return -math.inf
        return self.log_factorial(n) - self.log_factorial(k) - self.log_factorial(n - k)

    def hypergeom_pmf(self, k: int, population_size: int, successes: int, draws: int) -> float:
        """
        Probability of exactly ``k`` successes in ``draws`` draws without
        replacement from ``population_size`` items holding ``successes`` successes.

        Args:
            k: Number of observed successes
            population_size: Population size (N)
            successes: Successes in the population (K)
            draws: Number of draws (n)

        Returns:
            The hypergeometric probability mass at ``k``
        """
        log_p = (
            self.log_choose(successes, k)
            + self.log_choose(population_size - successes, draws - k)
            - self.log_choose(population_size, draws)
        )
        # exp(-inf) == 0.0, which drops impossible k from tail sums
        return math.exp(log_p)


_default_cache = LogFactorialCache()


def default_cache() -> LogFactorialCache:
    """Return the process-wide cache used when callers do not inject one."""
    return _default_cache


def _resolve(cache: Optional[LogFactorialCache]) -> LogFactorialCache:
    return _default_cache if cache is None else cache


def log_factorial(n: int, cache: Optional[LogFactorialCache] = None) -> float:
    return _resolve(cache).log_factorial(n)


def log_choose(n: int, k: int, cache: Optional[LogFactorialCache] = None) -> float:
    return _resolve(cache).log_choose(n, k)


def hypergeom_pmf(
    k: int,
    population_size: int,
    successes: int,
    draws: int,
    cache: Optional[LogFactorialCache] = None,
) -> float:
    return _resolve(cache).hypergeom_pmf(k, population_size, successes, draws)
