"""Console entry points for the Open Finance client."""
