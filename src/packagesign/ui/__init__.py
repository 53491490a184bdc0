"""User-facing layers: workflows, batch runner and the command line."""
