"""Services: the imperative shell around the pure round core.

Invariants:
    - Services own IO sequencing (ledger, store, timer); core/ stays pure
    - GameService is the only entry point transports should call
"""
