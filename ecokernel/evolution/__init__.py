"""Genomes and fitness-based selection over agent populations."""
