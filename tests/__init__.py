"""
vision_utils - Test Suite

Test modules mirror the package layout:
- tests/vision_utils/: Unit tests for processing, postprocess, tensor ops and batching
"""
