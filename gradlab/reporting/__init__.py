# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Reporting boundary for gradlab.

Training reports cross a binary channel as flat float32 buffers; the codec
here defines that layout.
"""
