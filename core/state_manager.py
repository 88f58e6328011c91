"""
Anti-Detection State Manager

Registry of per-context exclusive gates. The orchestrator holds the gate
for a context while it mutates and persists that context's state, so at
most one record() call per context is in flight. Different contexts get
different gates and proceed in parallel.

Usage:
    gates = ContextGateRegistry()
    async with gates.gate("ctx-1"):
        ...
"""

from __future__ import annotations

import asyncio
import threading
from typing import Dict


class ContextGateRegistry:
    """
    Thread-safe map of context id -> asyncio.Lock.

    Gates are created lazily on first use and never removed.

    Attributes:
        _gates: Context id to gate.
        _registry_lock: Guards check-then-insert on _gates.
    """

    def __init__(self) -> None:
        self._gates: Dict[str, asyncio.Lock] = {}
        self._registry_lock: threading.Lock = threading.Lock()

    def gate(self, context_id: str) -> asyncio.Lock:
        """
        Return the gate for a context, creating it on first use.

        Two racing callers always receive the same lock object.
        """
        gate = self._gates.get(context_id)
        if gate is not None:
            return gate
        with self._registry_lock:
            return self._gates.setdefault(context_id, asyncio.Lock())

    def __contains__(self, context_id: str) -> bool:
        return context_id in self._gates

    def __len__(self) -> int:
        return len(self._gates)
