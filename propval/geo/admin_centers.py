# Administrative centre coordinates (province seat and district seats) for the
# markets the listing platform covers. Names follow the official spelling so the
# last parts of a formatted address ("Quận Đống Đa, Hà Nội") can be matched.

ADMIN_CENTERS: dict[str, dict] = {
    "Thành phố Hà Nội": {
        "latitude": 21.0285, "longitude": 105.8542,
        "districts": [
            {"name": "Quận Ba Đình", "latitude": 21.0341, "longitude": 105.8142},
            {"name": "Quận Hoàn Kiếm", "latitude": 21.0288, "longitude": 105.8525},
            {"name": "Quận Tây Hồ", "latitude": 21.0705, "longitude": 105.8188},
            {"name": "Quận Long Biên", "latitude": 21.0362, "longitude": 105.8936},
            {"name": "Quận Cầu Giấy", "latitude": 21.0362, "longitude": 105.7906},
            {"name": "Quận Đống Đa", "latitude": 21.0181, "longitude": 105.8294},
            {"name": "Quận Hai Bà Trưng", "latitude": 21.0059, "longitude": 105.8574},
            {"name": "Quận Hoàng Mai", "latitude": 20.9746, "longitude": 105.8632},
            {"name": "Quận Thanh Xuân", "latitude": 20.9937, "longitude": 105.8110},
            {"name": "Quận Hà Đông", "latitude": 20.9710, "longitude": 105.7788},
            {"name": "Quận Nam Từ Liêm", "latitude": 21.0122, "longitude": 105.7657},
            {"name": "Quận Bắc Từ Liêm", "latitude": 21.0694, "longitude": 105.7577},
            {"name": "Huyện Gia Lâm", "latitude": 21.0223, "longitude": 105.9474},
            {"name": "Huyện Đông Anh", "latitude": 21.1367, "longitude": 105.8496},
            {"name": "Thị xã Sơn Tây", "latitude": 21.1382, "longitude": 105.5052},
        ],
    },
    "Thành phố Hồ Chí Minh": {
        "latitude": 10.7769, "longitude": 106.7009,
        "districts": [
            {"name": "Quận 1", "latitude": 10.7757, "longitude": 106.7004},
            {"name": "Quận 3", "latitude": 10.7843, "longitude": 106.6844},
            {"name": "Quận 4", "latitude": 10.7579, "longitude": 106.7013},
            {"name": "Quận 5", "latitude": 10.7540, "longitude": 106.6634},
            {"name": "Quận 7", "latitude": 10.7340, "longitude": 106.7218},
            {"name": "Quận 10", "latitude": 10.7729, "longitude": 106.6680},
            {"name": "Quận Bình Thạnh", "latitude": 10.8106, "longitude": 106.7091},
            {"name": "Quận Phú Nhuận", "latitude": 10.7992, "longitude": 106.6803},
            {"name": "Quận Tân Bình", "latitude": 10.8016, "longitude": 106.6527},
            {"name": "Quận Gò Vấp", "latitude": 10.8387, "longitude": 106.6653},
            {"name": "Thành phố Thủ Đức", "latitude": 10.8494, "longitude": 106.7537},
            {"name": "Huyện Bình Chánh", "latitude": 10.6874, "longitude": 106.5938},
        ],
    },
    "Thành phố Đà Nẵng": {
        "latitude": 16.0544, "longitude": 108.2022,
        "districts": [
            {"name": "Quận Hải Châu", "latitude": 16.0471, "longitude": 108.2062},
            {"name": "Quận Thanh Khê", "latitude": 16.0648, "longitude": 108.1889},
            {"name": "Quận Sơn Trà", "latitude": 16.0860, "longitude": 108.2394},
            {"name": "Quận Ngũ Hành Sơn", "latitude": 16.0006, "longitude": 108.2520},
            {"name": "Quận Liên Chiểu", "latitude": 16.0718, "longitude": 108.1501},
        ],
    },
    "Thành phố Hải Phòng": {
        "latitude": 20.8449, "longitude": 106.6881,
        "districts": [
            {"name": "Quận Hồng Bàng", "latitude": 20.8618, "longitude": 106.6828},
            {"name": "Quận Lê Chân", "latitude": 20.8476, "longitude": 106.6763},
            {"name": "Quận Ngô Quyền", "latitude": 20.8543, "longitude": 106.7000},
        ],
    },
    "Tỉnh Bắc Ninh": {
        "latitude": 21.1861, "longitude": 106.0763,
        "districts": [
            {"name": "Thành phố Bắc Ninh", "latitude": 21.1861, "longitude": 106.0763},
            {"name": "Thành phố Từ Sơn", "latitude": 21.1167, "longitude": 105.9600},
        ],
    },
    "Thành phố Cần Thơ": {
        "latitude": 10.0452, "longitude": 105.7469,
        "districts": [
            {"name": "Quận Ninh Kiều", "latitude": 10.0341, "longitude": 105.7880},
            {"name": "Quận Cái Răng", "latitude": 10.0002, "longitude": 105.7582},
        ],
    },
}
