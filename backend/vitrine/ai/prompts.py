"""Prompt texts sent to the generation provider (pt-BR, as the catalogue team writes them)."""

ENHANCE = (
    "Tarefa: Aprimorar imagem. Diretivas: Qualidade de estúdio profissional, alta resolução, "
    "pronto para e-commerce. Aumentar nitidez. Realçar cores. Detalhar texturas. Manter composição "
    "original. Não adicione ou remova elementos. Responda apenas com a imagem aprimorada, sem texto adicional."
)

TRAIN_AGE = (
    'Descreva em detalhes as características físicas e de proporção corporal para um modelo de '
    'e-commerce da idade "{age}". Foque em aspectos como formato do rosto, tipo de corpo, proporções '
    "dos membros, e características típicas da pele e cabelo. A descrição deve ser técnica e focada "
    "em gerar imagens realistas."
)
AGE_NOT_SPECIFIED = "Características de idade não especificadas."

EDIT_MASK_INTRO = "A imagem a seguir é uma máscara. A área em vermelho indica a região a ser editada."
EDIT_MASK = "Na área mascarada, aplique a seguinte edição: {prompt}"
EDIT_HOTSPOT = (
    "A imagem fornecida tem {width} pixels de largura por {height} pixels de altura. "
    "Na coordenada x={x}, y={y} (contando a partir do canto superior esquerdo), "
    "aplique a seguinte edição: {prompt}"
)
EDIT_NEEDS_SELECTION = "É necessário fornecer um hotspot ou uma máscara para a edição."

POSE_VARIATION = (
    "Analise a imagem de entrada, que mostra um modelo vestindo uma peça de roupa. Sua tarefa é gerar "
    "uma nova imagem do mesmo modelo, vestindo a mesma roupa, com o mesmo fundo e iluminação, mas em "
    "uma pose ligeiramente diferente e realista. A roupa deve permanecer totalmente visível e ser o foco "
    "principal. Não altere o rosto do modelo ou as características da roupa."
)

OUTPAINT = (
    "Tarefa: Outpainting. A imagem fornecida contém o assunto principal e áreas brancas para "
    "preenchimento. A máscara vermelha indica exatamente essas áreas a serem preenchidas. Preencha as "
    "áreas da máscara estendendo o fundo existente de forma contínua e fotorrealista. NÃO altere a área "
    "da imagem que não está mascarada. O resultado final deve ser uma imagem totalmente preenchida, sem "
    "as áreas brancas ou a máscara vermelha."
)

DESCRIBE_CLOTHING = """Analise detalhadamente as imagens da peça de roupa fornecida, focando em todos os aspectos relevantes para uma descrição completa de e-commerce. Extraia as informações em formato JSON estruturado com as seguintes chaves: "Tipo de Peça", "Cores Principais", "Estampa/Padrão", "Tipo de Tecido", "Caimento", "Detalhes de Bolsos", "Tipo de Fechamento", "Decote", "Comprimento da Manga", "Detalhes Adicionais", "Transparência", "Ocasião Recomendada".
- "Cores Principais": Liste todas as cores visíveis na peça, separadas por vírgula.
- "Estampa/Padrão": Descreva o padrão de forma detalhada (ex: 'Listras finas verticais', 'Estampa floral com fundo escuro', 'Xadrez vichy'). Se não houver, indique 'Liso'.
- "Tipo de Tecido": Identifique a textura e o material aparente (ex: 'Jeans com lavagem clara', 'Malha canelada de algodão', 'Seda sintética com brilho acetinado').
- "Caimento": Descreva como a peça veste no corpo (ex: 'Justo ao corpo (slim fit)', 'Modelagem reta e solta', 'Oversized').
- "Detalhes de Bolsos": Descreva a quantidade, tipo e localização dos bolsos (ex: 'Dois bolsos frontais tipo faca', 'Um bolso no peito com lapela', 'Nenhum bolso visível').
- "Tipo de Fechamento": Descreva o método de fechamento da peça (ex: 'Fechamento frontal por botões', 'Zíper lateral invisível', 'Sem fechamento, peça de vestir').
- "Detalhes Adicionais": Liste quaisquer outros detalhes relevantes como 'Babados na barra', 'Gola com nervuras', 'Bordado de logo no peito', 'Aplicações de lantejoulas'.
- "Transparência": Avalie a transparência do tecido (ex: 'Nenhuma transparência', 'Levemente transparente', 'Totalmente transparente').
- "Ocasião Recomendada": Sugira ocasiões de uso apropriadas (ex: 'Casual, dia a dia', 'Festa, eventos noturnos', 'Formal, ambiente de trabalho')."""

DESCRIBE_FIT = (
    "Descreva brevemente o caimento e o estilo da roupa nesta imagem. Foque em termos como 'justo', "
    "'solto', 'oversized', 'fluido', 'estruturado', etc."
)

# ---- geração de modelo (uma parte de texto por linha) ----
MODEL_HEADER = "Gere uma imagem de um modelo de e-commerce vestindo a roupa fornecida. Requisitos:"
MODEL_FRAMING = "- Enquadramento da Foto: {framing}. Siga este enquadramento estritamente."
MODEL_BACK_WARNING = (
    "- ATENÇÃO: A parte de trás da roupa é o foco. Se houver estampas, textos ou detalhes importantes "
    "nas costas da peça, a pose do modelo e o cabelo NÃO DEVEM cobri-los. A estampa traseira deve ser "
    "completamente visível e legível."
)
MODEL_ASPECT = "- Proporção da Imagem: 1:1 (quadrada)."
MODEL_MULTI_VIEW = (
    "- Roupa Principal (Múltiplas Vistas): As imagens a seguir mostram a mesma peça de roupa de "
    "diferentes ângulos para referência. Use todas para entender a peça completamente."
)
MODEL_VIEW_N = "- Vista da Roupa {n}:"
MODEL_SINGLE_VIEW = "- Roupa Principal:"
MODEL_DESCRIPTION = (
    "- Descrição da Roupa (para referência): {description}. Use as imagens como fonte principal, "
    "mas esta descrição ajuda a entender os detalhes."
)
MODEL_BOTTOM = "- Peça Complementar:"
MODEL_BOTTOM_DESCRIPTION = (
    "- Descrição da Peça Complementar (para referência): {description}. Use a imagem da peça "
    "complementar como fonte principal, mas esta descrição ajuda a entender os detalhes."
)
MODEL_FIT = "- Descrição do Caimento e Estilo (baseado na imagem de referência): {fit}"
MODEL_AGE = "- Idade do Modelo: {age}"
MODEL_GENDER = "- Gênero do Modelo: {gender}"
MODEL_TRAINED = "- Características do Modelo (Baseado no Treinamento de IA): {characteristics}"
MODEL_NOTES = "- Observações Adicionais do Modelo: {notes}"
MODEL_NEGATIVE = "- Exclusões (NÃO inclua o seguinte): {negative}"
MODEL_REFERENCE = "- Modelo de Referência (use como forte inspiração para o rosto e tipo físico):"
MODEL_SCENE_REFERENCE = "- Cenário de Referência (replique este ambiente e iluminação):"
MODEL_SCENE_TEXT = "- Descrição do Cenário: {scene}"
MODEL_FINAL = (
    "Instruções Finais: A imagem deve ser de alta qualidade, hiper-realista, com iluminação de estúdio "
    "profissional e adequada para um catálogo de moda. O foco principal deve ser a roupa. Responda "
    "apenas com a imagem gerada, sem nenhum texto adicional."
)

FIND_DIFFERENCES = """Você é um especialista em controle de qualidade de moda. Compare a "Peça Original" com a roupa na "Imagem Gerada". Use a "Descrição Original" como referência.
    1. Identifique todas as discrepâncias (cores, padrões, forma, detalhes ausentes/adicionados).
    2. Crie um "Plano de Correção" em texto, descrevendo passo a passo como editar a "Imagem Gerada" para que a roupa corresponda perfeitamente à "Peça Original". O plano deve ser claro e acionável por outra IA.
    3. Crie uma lista de "Pontos de Anotação" para as 3 discrepâncias mais importantes. Forneça coordenadas (x, y) em pixels na "Imagem Gerada" e uma breve descrição do problema nesse ponto.

    Retorne a resposta em formato JSON."""

APPLY_CORRECTION = """Você é um editor de fotos de IA. Sua tarefa é corrigir a "Imagem Gerada" para que a roupa nela corresponda perfeitamente à "Peça Original".
    Siga estritamente o "Plano de Correção" fornecido para fazer as edições. O plano é:
    ---
    {plan}
    ---
    O resultado final deve ser uma imagem fotorrealista com a roupa corrigida. Não altere o modelo, a pose ou o fundo, a menos que seja absolutamente necessário para a correção da roupa."""

# ---- mensagens de erro da resposta ----
BLOCKED = "A solicitação para {context} foi bloqueada. Motivo: {reason}. {message}"
STOPPED = (
    "A tarefa de {context} parou inesperadamente. Motivo: {reason}. "
    "Isso geralmente está relacionado às configurações de segurança."
)
NO_IMAGE = "O modelo de IA não retornou uma imagem para a tarefa de {context}. "
NO_IMAGE_WITH_TEXT = 'O modelo respondeu com texto: "{text}"'
NO_IMAGE_HINT = (
    "Isso pode acontecer devido a filtros de segurança ou se a solicitação for muito complexa. "
    "Por favor, tente reformular seu comando para ser mais direto."
)
INVALID_DIFFERENCES = "A IA retornou uma análise de diferenças em formato inválido."
INVALID_DESCRIPTION = "A IA retornou uma descrição de roupa em formato inválido."
