"""Pure domain layer of the recon kernel: value objects, clock, diagnostics."""
