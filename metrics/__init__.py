"""Metric registry, document conversion and sinks"""
