"""Bunch checkpointing: Merkle commitments over batches of block headers."""
