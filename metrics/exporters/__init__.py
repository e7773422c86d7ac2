"""Elasticsearch bulk sink and batch flushing"""
