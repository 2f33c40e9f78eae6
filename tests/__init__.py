"""
Conclave SDK test suite.

Shared in-memory fakes (ledger, JSON-RPC endpoints, worker service) live in
`tests.fakes`; nothing here touches the network.
"""
