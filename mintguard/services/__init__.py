"""
Image fingerprinting and near-duplicate matching services.
"""

from .errors import CorpusUnavailable, DecodeError, MalformedFingerprint, MintguardError
from .image_hash import dhash64, hamming_distance, similarity
from .matcher import SimilarityMatcher, rank_candidates
