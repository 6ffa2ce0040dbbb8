# Keep in sync with the ESP32 sole firmware GATT table

PRESSURE_SERVICE = "12345678-1234-1234-1234-1234567890ab"
PRESSURE_CHAR = "abcd1234-5678-90ab-cdef-1234567890ab"  # Notify + Write (START/STOP)
