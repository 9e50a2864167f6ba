"""JSON API handlers for the conversion server.

- convert.py: upload receipt, POST /convert and GET /download/{filename}
- tools.py: GET /ffmpeg-info
- errors.py: error codes and the shared error body
"""
