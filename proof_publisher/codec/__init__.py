"""
Byte-exact codecs shared by the guest inputs, journals and contract calls.
"""
