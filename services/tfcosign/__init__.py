"""Sign and verify Terraform module archives with cosign."""

__version__ = "0.3.0"
