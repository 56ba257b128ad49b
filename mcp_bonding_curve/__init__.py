"""
Bonding Curve Package Initialization

This package issues a fungible supply token whose price is a deterministic
function of its circulating supply, served over the Model Context Protocol (MCP).
Buyers deposit a reserve asset to mint; sellers burn to withdraw.

The package includes:
- Exact integer curve math (constant, linear and square-root curves)
- The reserve/supply ledger with atomic buy and sell operations
- Issuance validation and an instance registry
- MCP server tools and a read-only HTTP API
- Custom error handling
"""
