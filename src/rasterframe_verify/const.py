ERRORS = {
  "E_IO": "Source could not be read",
  "E_FORMAT": "Unrecognised image container",
  "E_SIGNATURE": "Signature missing or mismatched",
  "E_HEADER": "Header field malformed, duplicated, unknown or out of range",
  "E_CHUNK": "Chunk type unknown or chunk framing truncated",
  "E_CHUNK_ORDER": "IHDR is not the first chunk",
  "E_IMAGE_DATA": "Raster region empty or beyond end of source",
  "E_CRC": "Chunk CRC does not match its contents",
  "E_STREAM": "Compressed data stream is corrupt",
  "E_STREAM_SIZE": "Inflated data size does not match IHDR geometry",
  "E_OTHER": "Unclassified framing failure",
}
