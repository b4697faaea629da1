# CPU core: register file, ALU and text decoder.
