"""rasterframe verifier - PASS/FAIL reports for image containers."""
