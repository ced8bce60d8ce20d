"""rentwatch: rental listings harvested from monitored chat groups."""
