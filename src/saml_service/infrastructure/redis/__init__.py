"""Redis-backed infrastructure"""
