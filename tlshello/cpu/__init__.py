"""Decoding of processor feature bits into named capability flags."""