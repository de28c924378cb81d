"""rasterframe decoders - Netpbm and PNG framing, stream reassembly, evidence."""
