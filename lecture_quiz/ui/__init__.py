"""Console views for the lecture quiz client."""
