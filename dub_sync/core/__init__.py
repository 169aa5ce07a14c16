"""
Core estimation modules: ffmpeg pipelines, marker parsing, reference track
selection and the offset search.
"""
