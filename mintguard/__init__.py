"""
mintguard - Near-duplicate image gate for art minting

Computes perceptual (dHash) and content (SHA-256) fingerprints for uploaded
artwork and surfaces previously published look-alikes before a mint proceeds.
"""

__version__ = "1.0.0"
__author__ = "mintguard Team"
__description__ = "Near-duplicate image moderation gate"
