"""
Default category sets for `flask categories seed`.

Each entry is (name, prefix, description). Prefixes are globally unique, so
re-running a seed skips rows that already exist.
"""

# =============================================================================
# WOMEN'S FASHION
# =============================================================================

WOMEN_FASHION_CATEGORIES = [
    ("ชุดเดรส", "DRES", "เดรสและชุดกระโปรงผู้หญิง"),
    ("ชุดทำงาน", "WORK", "ชุดทำงานและชุดออฟฟิศผู้หญิง"),
    ("ชุดลำลอง", "CASU", "ชุดลำลองและชุดเที่ยวผู้หญิง"),
    ("ชุดราตรี", "EVNG", "ชุดราตรีและชุดออกงานผู้หญิง"),
    ("ชุดชั้นใน", "LING", "ชุดชั้นในและชุดนอนผู้หญิง"),
    ("ชุดกีฬา", "SPRT", "ชุดกีฬาและชุดออกกำลังกายผู้หญิง"),
    ("ชุดว่ายน้ำ", "SWIM", "ชุดว่ายน้ำและบิกินี่ผู้หญิง"),
    ("เสื้อผู้หญิง", "WTOP", "เสื้อทุกประเภทสำหรับผู้หญิง"),
    ("กางเกงผู้หญิง", "WPNT", "กางเกงและกระโปรงผู้หญิง"),
    ("เสื้อคลุมผู้หญิง", "WJKT", "เสื้อคลุมและแจ็คเก็ตผู้หญิง"),
]

# =============================================================================
# PANTS
# =============================================================================

PANTS_CATEGORIES = [
    ("กางเกงขายาว", "LONG", "กางเกงขายาวผู้หญิงทุกแบบ"),
    ("กางเกงขาสั้น", "SHRT", "กางเกงขาสั้นและกางเกงฮอตแพนท์"),
    ("กางเกงยีนส์", "JEAN", "กางเกงยีนส์ผู้หญิงทุกทรง"),
    ("กางเกงขากระบอก", "WIDE", "กางเกงขากระบอกและขาบาน Wide Leg"),
    ("กางเกงขาเดฟ", "SLIM", "กางเกงขาเดฟและสกินนี่ Slim Fit"),
    ("กางเกงเอวสูง", "HIGH", "กางเกงเอวสูง High Waist"),
    ("กางเกงวอร์ม", "JGGR", "กางเกงวอร์มและจ็อกเกอร์ Jogger"),
    ("กางเกงขาม้า", "BOOT", "กางเกงขาม้า Bootcut"),
    ("กางเกงผ้าลินิน", "LINN", "กางเกงผ้าลินินและผ้าบาง"),
    ("กางเกงเลกกิ้ง", "LEGG", "เลกกิ้งและกางเกงรัดรูป Leggings"),
]

# =============================================================================
# SKIRTS
# =============================================================================

SKIRT_CATEGORIES = [
    ("กระโปรงสั้น", "MINI", "กระโปรงสั้นเหนือเข่า มินิสเกิร์ต"),
    ("กระโปรงยาว", "MAXI", "กระโปรงยาวระดับข้อเท้า แม็กซี่สเกิร์ต"),
    ("กระโปรงเอ", "ALNE", "กระโปรงทรงเอ A-Line Skirt"),
    ("กระโปรงดินสอ", "PENC", "กระโปรงทรงดินสอ Pencil Skirt"),
    ("กระโปรงจีบ", "PLET", "กระโปรงจีบ Pleated Skirt"),
    ("กระโปรงบาน", "FLRE", "กระโปรงบาน Flare Skirt"),
    ("กระโปรงยีนส์", "DNIM", "กระโปรงยีนส์ Denim Skirt"),
    ("กระโปรงผ้าไหม", "SILK", "กระโปรงผ้าไหมและผ้าซาติน"),
    ("กระโปรงลูกไม้", "LACE", "กระโปรงลูกไม้ Lace Skirt"),
    ("กระโปรงทรงสอบ", "WRAP", "กระโปรงทรงสอบ Wrap Skirt"),
]

CATEGORY_SETS = {
    "women": WOMEN_FASHION_CATEGORIES,
    "pants": PANTS_CATEGORIES,
    "skirts": SKIRT_CATEGORIES,
}
