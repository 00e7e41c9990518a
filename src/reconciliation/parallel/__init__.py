"""
Parallel table reconciliation.

Runs several tables' page loops at once on a bounded thread pool, with
a per-table timeout, failure isolation and cancellation tokens.
"""

from .reconciler import ParallelReconciler

__all__ = ['ParallelReconciler']
