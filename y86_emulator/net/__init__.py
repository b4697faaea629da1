# TCP session server and interactive line client.
