"""TangoHub scoring and admission-control core."""
