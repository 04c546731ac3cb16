"""DNI Lookup runners: command line (``dnl.run``) and HTTP service (``dnl.server``)."""
