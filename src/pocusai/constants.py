"""Language, mode and prompt tables."""

from typing import Dict, List, NamedTuple

from .models import ADULT_MODE, PEDIATRIC_MODE

APP_NAME = "POCUS AI"


class Language(NamedTuple):
    code: str
    name: str
    ai_param: str  # what the model is told to write in


class QuickAction(NamedTuple):
    label: str
    query: str


SUPPORTED_LANGUAGES: List[Language] = [
    Language("ko", "한국어 (Korean)", "Professional Korean"),
    Language("en", "English", "Professional English"),
    Language("ja", "日本語 (Japanese)", "Professional Japanese"),
    Language("zh", "简体中文 (Chinese)", "Professional Chinese Simplified"),
    Language("es", "Español (Spanish)", "Professional Spanish"),
    Language("fr", "Français (French)", "Professional French"),
    Language("de", "Deutsch (German)", "Professional German"),
    Language("vi", "Tiếng Việt (Vietnamese)", "Professional Vietnamese"),
    Language("th", "ภาษาไทย (Thai)", "Professional Thai"),
    Language("id", "Bahasa Indonesia (Indonesian)", "Professional Indonesian"),
]


def get_language(code: str) -> Language:
    """Looks up a language, falling back to the first supported one."""
    return next((l for l in SUPPORTED_LANGUAGES if l.code == code), SUPPORTED_LANGUAGES[0])


MODE_LABELS: Dict[str, str] = {ADULT_MODE: "Adult", PEDIATRIC_MODE: "Pediatric"}
MODE_TITLE_PREFIXES: Dict[str, str] = {ADULT_MODE: "[Adult] ", PEDIATRIC_MODE: "[Ped] "}

SYSTEM_INSTRUCTION_TEMPLATE = """
### ROLE
Expert {MODE} Clinical Ultrasound Consultant.

### RESPONSE STRUCTURE
1. 🏥 CLINICAL FINDINGS (Clinical sonographic signs)
2. 🎯 SUSPECTED DIAGNOSIS (Most likely differential)
3. 🔎 DETAILED ANALYSIS (Dual-layer AI/Clinical reasoning)

Language: {LANGUAGE}.
Note: Always include relevant medical terms in English.
"""

DUAL_LAYER_DIRECTIVE = (
    "\n\n[SYSTEM REQUEST]: Analyze this image using the 'Hybrid Intelligence Mode'. "
    "Perform the Dual-Layer Analysis (Clinical Interpretation vs. AI Morphological "
    "Feature Extraction)."
)

WELCOME_TEXTS: Dict[str, str] = {
    "en": f"**Welcome to {APP_NAME}.**\n\nI am an intelligent consultant supporting everything from emergency POCUS to precision diagnostic ultrasound.",
    "ko": f"**{APP_NAME}에 오신 것을 환영합니다.**\n\n저는 응급 현장의 POCUS부터 정밀 진단 초음파까지 지원하는 지능형 컨설턴트입니다.",
    "ja": f"**{APP_NAME}へようこそ。**\n\n私は救急現場のPOCUSから精密診断超音波までサポートするインテリジェントコンサルタントです。",
    "zh": f"**欢迎使用 {APP_NAME}。**\n\n我是您的智能超声顾问，支持从急诊 POCUS 到精准诊断超声的所有领域。",
    "es": f"**Bienvenido a {APP_NAME}.**\n\nSoy un consultor inteligente que apoya desde POCUS de emergencia hasta ecografía de diagnóstico de precisión.",
    "fr": f"**Bienvenue sur {APP_NAME}.**\n\nJe suis un consultant intelligent vous accompagnant du POCUS d'urgence à l'échographie diagnostique de précision.",
    "de": f"**Willkommen bei {APP_NAME}.**\n\nIch bin ein intelligenter Berater, der Sie vom Notfall-POCUS bis zur Präzisionsdiagnostik unterstützt.",
    "vi": f"**Chào mừng bạn đến với {APP_NAME}.**\n\nTôi là chuyên gia tư vấn thông minh hỗ trợ từ POCUS cấp cứu đến siêu âm chẩn đoán chính xác.",
    "th": f"**ยินดีต้อนรับสู่ {APP_NAME}**\n\nฉันเป็นที่ปรึกษาอัจฉริยะที่สนับสนุนตั้งแต่ POCUS ฉุกเฉินไปจนถึงการอัลตราซาวนด์วินิจฉัยที่แม่นยำ",
    "id": f"**Selamat datang di {APP_NAME}.**\n\nSaya adalah konsultan cerdas yang mendukung POCUS darurat hingga ultrasonografi diagnostik presisi.",
}


def welcome_text(code: str) -> str:
    return WELCOME_TEXTS.get(code, WELCOME_TEXTS["en"])


_EN_QUICK_ACTIONS: Dict[str, List[QuickAction]] = {
    ADULT_MODE: [
        QuickAction("eFAST (Trauma)", "eFAST protocol for trauma and free fluid detection"),
        QuickAction("RUSH (Shock)", "RUSH protocol (Pump, Tank, Pipes) for hypotension"),
        QuickAction("BLUE (Dyspnea)", "BLUE protocol findings for acute respiratory failure"),
        QuickAction("AAA (Aneurysm)", "Abdominal Aortic Aneurysm scan and measurement"),
        QuickAction("DVT (Thrombosis)", "DVT diagnosis using 2-point compression technique"),
        QuickAction("Cardiac Tamponade", "Ultrasound signs of pericardial effusion and tamponade"),
        QuickAction("Acute Cholecystitis", "Gallbladder wall thickening and Sonographic Murphy sign"),
        QuickAction("Renal Colic/Stone", "Hydronephrosis grading and stone detection"),
        QuickAction("Ocular (Retinal)", "Ocular POCUS for retinal detachment and increased ICP"),
        QuickAction("Pneumothorax", "Lung point and loss of sliding for pneumothorax diagnosis"),
    ],
    PEDIATRIC_MODE: [
        QuickAction("Intussusception", "Target sign and scanning for intussusception"),
        QuickAction("Appendicitis", "Criteria and scanning technique for pediatric appendicitis"),
        QuickAction("Pyloric Stenosis", "Measurement of muscle thickness and length in IHPS"),
        QuickAction("NEC (Neonatal)", "Pneumatosis intestinalis detection for neonatal NEC"),
        QuickAction("Testicular Torsion", "Doppler flow and Whirlpool sign in scrotal emergency"),
        QuickAction("Hip Effusion", "Hip joint effusion measurement and side comparison"),
        QuickAction("Pediatric Pneumonia", "Consolidation and B-line analysis in children"),
        QuickAction("Abscess vs. Cellulitis", "Distinguishing abscess and Swirl sign in soft tissue"),
        QuickAction("Skull Fracture", "Skull fracture and hematoma detection post-trauma"),
        QuickAction("Bladder/Residual", "Bladder volume calculation and post-void residual"),
    ],
}

_KO_QUICK_ACTIONS: Dict[str, List[QuickAction]] = {
    ADULT_MODE: [
        QuickAction("eFAST (외상)", "외상 환자 eFAST 프로토콜 및 복수 확인 방법"),
        QuickAction("RUSH (쇼크)", "쇼크 환자 RUSH 프로토콜(Pump, Tank, Pipes) 가이드"),
        QuickAction("BLUE (호흡곤란)", "급성 호흡부전 감별을 위한 BLUE 프로토콜 소견"),
        QuickAction("AAA (대동맥류)", "복부 대동맥류 파열 의심 시 스캔 및 측정 방법"),
        QuickAction("DVT (심부정맥혈전)", "2-point 압박법을 이용한 DVT 진단 가이드"),
        QuickAction("심장 (Tamponade)", "심낭 삼출 및 심장 눌림증(Tamponade) 초음파 소견"),
        QuickAction("급성 담낭염", "담낭염 진단을 위한 Murphy sign 및 벽 비후 측정"),
        QuickAction("수신증/요로결석", "신산통 환자 수신증 단계 분류 및 결석 확인"),
        QuickAction("안구 (망막박리)", "안구 초음파를 통한 망막박리 및 안압 상승 확인"),
        QuickAction("기흉 (Lung Point)", "폐 슬라이딩 소실 및 Lung point 확인을 통한 기흉 진단"),
    ],
    PEDIATRIC_MODE: [
        QuickAction("장중첩증", "소아 장중첩증(Intussusception) Target sign 판독"),
        QuickAction("충수돌기염", "소아 충수돌기염(Appendicitis) 진단 기준 및 스캔법"),
        QuickAction("유문협착증", "비후성 유문협착증(IHPS) 근육 두께 및 길이 측정"),
        QuickAction("괴사성 장염 (NEC)", "신생아 NEC 의심 시 Pneumatosis intestinalis 확인"),
        QuickAction("고환 염전", "급성 음낭 통증 시 고환 염전(Torsion) 혈류 확인"),
        QuickAction("고관절 삼출", "소아 고관절 삼출액(Hip effusion) 측정 및 건측 비교"),
        QuickAction("소아 폐렴", "소아 폐렴 진단을 위한 Consolidation 및 B-line 분석"),
        QuickAction("농양 vs 봉와직염", "연부조직 감염 시 농양(Abscess) 유무 및 Swirl sign 확인"),
        QuickAction("두개골 골절", "소아 외상 시 초음파를 통한 두개골 골절 및 혈종 확인"),
        QuickAction("방광 용적/잔뇨", "소아 배뇨 장애 시 방광 용적 계산 및 잔뇨 측정"),
    ],
}


def quick_actions(language_code: str, mode: str) -> List[QuickAction]:
    """Canned queries for a mode; only Korean has its own translations."""
    table = _KO_QUICK_ACTIONS if language_code == "ko" else _EN_QUICK_ACTIONS
    return table[mode]
