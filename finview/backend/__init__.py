"""Experience API serving bank account views to the web frontend."""
