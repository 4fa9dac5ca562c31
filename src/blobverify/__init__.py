"""blobverify: conformance verification for blob storage backends."""
