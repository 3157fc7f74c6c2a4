"""
Host memory handling for accelerator transfers.

This module contains:
- aligned_empty: DMA-aligned host allocation
- pack / unpack: conversion between flat operands and memory packs
"""

from .packing import aligned_empty, is_aligned, pack, unpack

__all__ = ["aligned_empty", "is_aligned", "pack", "unpack"]
