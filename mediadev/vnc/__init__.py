"""RFB (VNC) client: pixel formats, authentication, encodings, server messages and connections."""