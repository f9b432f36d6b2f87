"""
Continuous Clearing Auction (CCA)

An engine that sells a fixed supply gradually over a block window:
- Issuance schedule releasing supply block by block
- Tick book of bid demand at discrete prices
- Single clearing price discovered at every checkpoint
- Exact, checkpoint-based settlement of fills and refunds
"""

__version__ = "0.1.0"
