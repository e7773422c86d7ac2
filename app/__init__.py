"""Status server and scheduled reporter"""
